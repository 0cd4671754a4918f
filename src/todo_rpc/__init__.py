"""
Multi-user todo service.

Procedures are served over a batched RPC endpoint (`todo_rpc.rpc`), sessions
come from the auth collaborator (`todo_rpc.auth`) and the app itself is built
by `todo_rpc.main.create_app`.
"""
