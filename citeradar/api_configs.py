from .config import (
    CROSSREF_BASE,
    OPENALEX_BASE,
    S2_BASE,
    SEARCH_RESULTS_PER_SOURCE,
    SOURCE_DETAILS_KEYS,
    SOURCE_CROSSREF,
    SOURCE_OPENALEX,
    SOURCE_S2,
)
from .api_generics import SourceConfig
from .text_utils import safe_get_field, safe_get_nested

CROSSREF_CONFIG = SourceConfig(
    name=SOURCE_CROSSREF,
    base_url=CROSSREF_BASE,
    details_key=SOURCE_DETAILS_KEYS[SOURCE_CROSSREF],
    query_param_name="query",
    result_path=["message", "items"],
    additional_params={
        "rows": SEARCH_RESULTS_PER_SOURCE,
        "select": ("DOI,title,author,published,container-title,publisher,type,URL,score,"
                   "is-referenced-by-count,reference-count,subject,ISSN,ISBN"),
    },
    # Crossref titles come as single-element lists
    title_getter=lambda c: safe_get_field(c, "title") or "",
    doi_getter=lambda c: safe_get_field(c, "DOI"),
)

S2_CONFIG = SourceConfig(
    name=SOURCE_S2,
    base_url=f"{S2_BASE}/paper/search",
    details_key=SOURCE_DETAILS_KEYS[SOURCE_S2],
    query_param_name="query",
    result_path=["data"],
    additional_params={
        "limit": SEARCH_RESULTS_PER_SOURCE,
        # Note: DOI is inside externalIds.DOI, not a top-level field
        "fields": ("paperId,title,citationCount,influentialCitationCount,referenceCount,authors,year,"
                   "venue,journal,externalIds,isOpenAccess,openAccessPdf,publicationDate,"
                   "publicationTypes"),
    },
    doi_getter=lambda p: safe_get_nested(p, "externalIds", "DOI"),
)

OPENALEX_CONFIG = SourceConfig(
    name=SOURCE_OPENALEX,
    base_url=OPENALEX_BASE,
    details_key=SOURCE_DETAILS_KEYS[SOURCE_OPENALEX],
    query_param_name="search",
    result_path=["results"],
    additional_params={
        "per-page": SEARCH_RESULTS_PER_SOURCE,
        "select": ("id,doi,title,display_name,publication_year,publication_date,primary_location,"
                   "open_access,authorships,cited_by_count,referenced_works_count,concepts,ids,type,"
                   "is_retracted"),
    },
    title_getter=lambda w: safe_get_field(w, "title") or safe_get_field(w, "display_name") or "",
    doi_getter=lambda w: safe_get_field(w, "doi"),
)

# Fixed query order, which is also the merge priority order
DEFAULT_SOURCE_CONFIGS = [CROSSREF_CONFIG, S2_CONFIG, OPENALEX_CONFIG]
