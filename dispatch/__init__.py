#The order lifecycle pipeline pieces:
#state_machines.order_state  - legal transitions and their guards
#dispatcher                  - AcceptanceCoordinator (atomic claim + best-effort ETA)
#redirect                    - where to resume a customer / rider after login
#notifier                    - tell riders in the same city about a new pending order
#
#Nothing is re-exported here: orders.repository imports the state machine,
#and the dispatcher imports orders.repository.
