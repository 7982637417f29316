"""Authorization core: principals, visibility policies and the access guard."""
