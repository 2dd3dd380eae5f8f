"""Setup (provisioning) services.

This package contains the helpers that *provision* and *tear down* the
infrastructure behind the orders API: the staging bucket, the seeded DynamoDB
table, and the pipeline that orders them.
"""
