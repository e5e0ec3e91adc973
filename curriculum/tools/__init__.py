"""Pure helpers used by the stage handlers: fact ledger and query builders."""
