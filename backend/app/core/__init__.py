############################################################
#
# videorelay - Async Video Generation Relay and Quota Ledger
#
# __init__.py: Core application logic package
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Core relay logic for VideoRelay: schemas, validation, pricing, adaptors."""
