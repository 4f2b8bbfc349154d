from .provisioner import Workspace, clone_repository, provision_workspace

__all__ = ["Workspace", "clone_repository", "provision_workspace"]
