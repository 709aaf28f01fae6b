"""Service orchestration layer: coordinates multi-service workflows.

Modules:
- conversion_pipeline: Orchestrates download -> x2t -> classify/upload -> cleanup.
"""
