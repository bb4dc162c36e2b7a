"""Archive codec, integrity verifier and merge engine.

Dependency direction rules:
- cldf.protocol may import cldf.core, cldf.models and cldf.clid
- nothing below cldf.protocol may import it
"""
