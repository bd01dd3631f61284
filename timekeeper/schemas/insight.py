from timekeeper.schemas.report import CamelModel


class InsightResult(CamelModel):
    text: str
    available: bool = True
