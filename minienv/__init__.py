"""minienv: local minikube service environments."""

__version__ = "0.1.0"
