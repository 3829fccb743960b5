"""Azure OpenAI gateway layer.

Re-shapes OpenAI-style client requests into Azure deployment calls:
  - Backend Caller (deployment URL, api-key header, pass-through response)
  - Stream Reframer (whole event records only, paced)
  - Batch Fan-Out Aggregator (bounded concurrency, order-preserving merge)
"""
