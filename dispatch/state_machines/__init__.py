#State machines for the order lifecycle.
