"""
Diner-side ordering workflow.
"""

from qrmenu.services.workflow.cart import Cart, CartLine
from qrmenu.services.workflow.ordering import OrderingWorkflow, WorkflowStage

__all__ = ["Cart", "CartLine", "OrderingWorkflow", "WorkflowStage"]
