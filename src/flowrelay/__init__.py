"""FlowRelay - NetFlow v5 decode, enrich and forward pipeline.

Receives NetFlow v5 export packets over UDP, resolves hostnames for the
flow endpoints and forwards every record as JSON on stdout or as
InfluxDB line protocol over UDP.
"""

__version__ = "0.1.0"
