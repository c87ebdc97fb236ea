"""Constants used across the operator."""

ANNOTATION_PREFIX = "pangolin.ingress.k8s.io/"

# Finalizer guarding external cleanup
FINALIZER = "pangolin.ingress.k8s.io/finalizer"

# Written by the controller, read-only to users
ANNOTATION_RESOURCE_ID = ANNOTATION_PREFIX + "resource-id"

# Legacy ingress class annotation
ANNOTATION_INGRESS_CLASS = "kubernetes.io/ingress.class"

DEFAULT_RESOURCE_PREFIX = "pangolin-controller"

# Target defaults
TARGET_METHOD = "http"
DEFAULT_TARGET_PATH = "/"
