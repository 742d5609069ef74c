from sqlalchemy import Column, Date, Integer, MetaData, Table


def metric_count_table(table_key: str, metadata: MetaData | None = None) -> Table:
    """Shape of a destination table holding one row per calendar day.

    Tables are provisioned outside this job; the definition is only used to
    build inserts and to create fixtures in tests.
    """
    return Table(
        table_key,
        metadata if metadata is not None else MetaData(),
        Column("date", Date, primary_key=True, nullable=False),
        Column("count", Integer, nullable=False),
    )
