# render lifecycle: service client, edit builder, state reducer, reconciler
from .state import RenderSignal, RenderState, reduce
from .reconciler import RenderReconciler

__all__ = ['RenderSignal', 'RenderState', 'reduce', 'RenderReconciler']
