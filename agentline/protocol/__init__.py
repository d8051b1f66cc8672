"""JSON-RPC protocol engine and the provider contract servers implement."""
