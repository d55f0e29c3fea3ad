"""Gateway services: pricing, sponsorship, settlement, monitoring, wallets, tokens."""
