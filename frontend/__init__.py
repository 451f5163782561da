"""
Frontend Contracts

Render backend, input events and view models. Consumes engine state,
never mutates it except through the scene's input handlers.
"""
