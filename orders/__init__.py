"""
Orders domain package.

Public API:
- Domain models: Order, OrderItem, OrderStatus, Position
- Document codec: encode_order, decode_order, OrderDecodeError
- Cart and lifecycle policy

The repository, tracking and maintenance modules are imported by path
(orders.repository, ...) because they depend on dispatch.state_machines.
"""
from .models import Order, OrderItem, OrderStatus, Position, order_total
from .codec import OrderDecodeError, decode_order, decode_position, encode_order, encode_position
from .cart import Cart
from .policy import LifecyclePolicy, default_lifecycle_policy, policy_from_env

__all__ = ["Order",
           "OrderItem",
             "OrderStatus",
               "Position",
               "order_total",
               "OrderDecodeError",
               "decode_order",
               "decode_position",
               "encode_order",
               "encode_position",
               "Cart",
               "LifecyclePolicy",
               "default_lifecycle_policy",
               "policy_from_env",
               ]
