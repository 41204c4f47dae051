from pydantic import BaseModel


class LanguageInfo(BaseModel):
    id: str
    name: str
    extension: str
    executable: bool


class LanguagesResponse(BaseModel):
    languages: list[LanguageInfo]


class ToolchainsResponse(BaseModel):
    toolchains: dict[str, bool]
