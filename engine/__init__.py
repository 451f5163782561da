"""
Spatial Clustering & Focus Engine

Partitions cultural records into clusters, places them in 3D without
overlap and governs focus, highlighting and view-state restore.

LAYER STRUCTURE:
================

1. CONTRACTS (contracts/)
   - Immutable records, clusters, VisualNodes, errors-as-data

2. LAYOUT (layout/)
   - Responsibility: classifier -> sizer -> placement solver -> point placer
   - Outputs: one Layout per build generation with a sealed SpatialIndex
   - MUST NOT: patch a previous generation

3. INDEX (index.py)
   - Identifier lookup, valid only after its build completes

4. INTERACTION (focus.py, highlight.py, camera.py, scheduler.py)
   - Focus state machine (sole owner of the node lock), highlight overlay,
     camera rig and interpolation scheduler

5. PERSISTENCE (viewstate.py)
   - Single-use view-state snapshots and the ordered restore sequence

6. SCENE (scene.py)
   - The one owned engine-state object wiring the layers together

Import the layer modules directly (engine.scene, engine.focus, ...).
This package module stays import-free so that the ingestion and frontend
packages can depend on engine.contracts without pulling in the scene.
"""
