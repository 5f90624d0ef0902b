# /convers/utils/metrics.py

from prometheus_client import Counter, Histogram

# This file defines all Prometheus metrics used for application monitoring.
# Centralizing them here makes them easy to find and manage.

# Flow engine
inbound_messages_counter = Counter('inbound_messages_total', 'Inbound messages handled', ['outcome'])
auto_forward_hops_histogram = Histogram(
    'auto_forward_hops', 'Blocks sent per auto-forward run', buckets=(0, 1, 2, 3, 5, 8, 13, 25, 50)
)
flow_loads_counter = Counter('flow_loads_total', 'Remote flow loads', ['status'])

# Channel
outbound_messages_counter = Counter('whatsapp_outbound_messages_total', 'Outbound WhatsApp sends', ['status'])
webhook_signature_counter = Counter('webhook_signature_verifications_total', 'Webhook signature verifications', ['status'])

# Performance
response_time_histogram = Histogram('response_time_seconds', 'Response time in seconds', ['endpoint'])
