"""Domain layer (pure logic).

- Keep game rules and calculations here: ability arithmetic, hazard/card
  effects, the round state machine and the card-play ledger.
- Avoid I/O: no document store, no HTTP/FastAPI, no scheduler.
- Prefer deterministic functions (timestamps and ids are passed in as arguments).
"""
