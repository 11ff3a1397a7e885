# dlt folder loads accessor output into a destination:
# - sources/: one package per source, each stream a dlt resource
# - pipeline.py: runner (python -m shopr.dlt.pipeline shopify orders)
