"""
                        Services Module

Business logic behind the staff views.

Services:
    - menu: Table, menu and modifier readers
    - orders: Order submission, aggregation and status transitions
    - order_status: Order/item state machine
    - realtime: Change feed (memory or Redis) and order list subscriptions
    - registration: Account signup
"""
