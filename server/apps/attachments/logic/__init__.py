"""Attachment lifecycle logic: upload intake and the state machine."""
