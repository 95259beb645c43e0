"""Read every record a repository query matches.

Protean queries return one page at a time (100 records by default), so
repository methods that need the whole result walk through the pages.
"""

PAGE_SIZE = 100


def fetch_all(query, page_size=PAGE_SIZE):
    """Return all records matched by ``query``, ordered by id."""
    query = query.order_by("id")
    records = []
    offset = 0
    while True:
        items = query.offset(offset).limit(page_size).all().items
        records.extend(items)
        if len(items) < page_size:
            return records
        offset += page_size
