"""
Agent runtime: reason/act pipeline, event bridge, tools and model bindings.
"""
