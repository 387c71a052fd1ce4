"""Navigation text record source, sink and edit sidecar."""
