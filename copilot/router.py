# copilot/router.py

from copilot.state import Label, TemplateId

# One row per label. A new Label needs a new row here.
TEMPLATE_FOR_LABEL = {
    Label.CODING: TemplateId.TECHNICAL,
    Label.ML: TemplateId.TECHNICAL,
    Label.SYSTEM_DESIGN: TemplateId.TECHNICAL,
    Label.BEHAVIORAL: TemplateId.STRUCTURED_PROFESSIONAL,
    Label.PROCESS_DOMAIN: TemplateId.STRUCTURED_PROFESSIONAL,
    Label.OTHER: TemplateId.STRUCTURED_PROFESSIONAL,
}


def route(label: Label) -> TemplateId:
    return TEMPLATE_FOR_LABEL[Label(label)]
