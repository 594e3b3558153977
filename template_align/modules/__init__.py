"""
Building blocks of the alignment pipeline:

- cloud: point records, spatial index, transforms, file I/O
- features: normals and FPFH descriptors
- registration: coarse alignment, template selection, ICP refinement
- pipeline: stage functions and the stage runner
"""
