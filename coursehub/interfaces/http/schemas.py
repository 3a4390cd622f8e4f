from pydantic import BaseModel, ConfigDict, Field

class CourseForm(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    description: str = ""
    price: float = Field(default=0, ge=0, allow_inf_nan=False)

class HealthOut(BaseModel):
    status: str = "ok"
