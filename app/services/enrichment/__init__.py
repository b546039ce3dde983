"""
Player enrichment services.

PlayerEnrichmentClient fetches /players details, PlayerCache and
CachedPlayerClient avoid repeat lookups, and EnrichmentPipeline applies
normalized details to under-enriched transfers.
"""
