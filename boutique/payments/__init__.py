"""
Feature 'payments': session Chargily et réconciliation webhook.

Points d'entrée:
- service.create_checkout_session / service.start_checkout
- webhook.handle_webhook
"""
