"""
Slot scheduling guard: decides once per local day whether a scheduled
uniform announcement fires for each enabled slot.
"""
