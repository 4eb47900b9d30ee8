from .workflow_projects import WorkflowProjectsClient as WorkflowProjectsClient

__all__ = ["WorkflowProjectsClient"]
