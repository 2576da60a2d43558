"""State layer.

The flat cache is the single local source of truth for the datastore.
Every change to it is announced on the update bus, from which the
bank/channel model and any other subscriber follow along.
"""
