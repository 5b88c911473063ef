from enum import Enum


class RegistryCategory(Enum):
    """Each registry category has its own way of listing repositories and
    deleting images, and its own shape of image reference host.
    """

    ECR = "ecr"
    GAR = "gar"
