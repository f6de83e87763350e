"""
Squadron: deployment orchestration for projects, environments and servers.
"""
