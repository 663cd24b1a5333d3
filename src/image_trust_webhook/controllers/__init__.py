from .imagepolicy import ImagePolicyReconciler, ReconcileResult

__all__ = ["ImagePolicyReconciler", "ReconcileResult"]
