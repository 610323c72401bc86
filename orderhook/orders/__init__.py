"""Order capture: checkout session -> OrderRecord -> Postgres."""
