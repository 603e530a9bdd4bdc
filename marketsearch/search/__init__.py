"""Faceted search.

Filter compilation, facet computation, query execution and response
assembly, tied together by ``marketsearch.search.service.SearchService``.
"""
