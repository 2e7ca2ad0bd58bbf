"""Constants for the import engine: candidate headers, defaults, id prefixes."""

from tabsync.models.records import EntityKind

# Maximum rows per import batch
MAX_ROWS = 5000

# Substring matching ignores candidates shorter than this ("id" must not hit "Paid")
MIN_SUBSTRING_LENGTH = 3

# Derived id prefix per entity kind
ID_PREFIXES: dict[EntityKind, str] = {
    EntityKind.PROJECT: "prj",
    EntityKind.TICKET: "tkt",
    EntityKind.LEAD: "lead",
    EntityKind.PURCHASE: "po",
}

# Logical field -> ordered candidate headers, per entity kind.
#
# Candidates are matched accent-insensitively, so Spanish variants are
# written without accents. Within each auto-mapping pass (exact, then
# substring) fields are visited in declaration order and each column is
# claimed by at most one field, so specific fields (e.g.
# "delivery_date") are declared before generic ones (e.g. "date_created").
FIELD_CANDIDATES: dict[EntityKind, dict[str, tuple[str, ...]]] = {
    EntityKind.PROJECT: {
        "external_ref": (
            "id", "project id", "project #", "project number", "job #", "job number",
            "reference", "codigo", "numero de proyecto",
        ),
        "name": (
            "project name", "project", "name", "title",
            "nombre del proyecto", "proyecto", "nombre", "titulo", "obra",
        ),
        "client": (
            "client", "customer", "client name", "owner name",
            "cliente", "nombre del cliente",
        ),
        "status": ("status", "stage", "estado", "etapa", "situacion"),
        "contract_value": (
            "contract value", "value", "amount", "price", "total",
            "valor del contrato", "valor", "monto", "precio", "importe",
        ),
        "address": ("address", "location", "site", "direccion", "ubicacion", "sitio"),
        "city": ("city", "town", "ciudad", "municipio"),
        "area": ("area", "region", "country", "zona", "pais"),
        "estimator": (
            "estimator", "salesperson", "owner", "assigned to",
            "estimador", "vendedor", "responsable",
        ),
        "email": ("email", "client email", "e-mail", "correo"),
        "phone": ("phone", "client phone", "mobile", "telefono", "celular", "movil"),
        "contact_info": ("contact info", "contact", "contacto"),
        "labor_rate": ("labor rate", "hourly rate", "tarifa", "tarifa horaria"),
        "image_url": ("image url", "image", "photo", "project image", "imagen", "foto"),
        "notes": ("notes", "comments", "description", "notas", "comentarios", "observaciones"),
        "delivery_date": ("delivery date", "due date", "fecha de entrega", "entrega"),
        "expiration_date": (
            "expiration date", "valid until", "expires",
            "fecha de vencimiento", "vencimiento", "valido hasta",
        ),
        "awarded_date": ("awarded date", "award date", "fecha de adjudicacion", "adjudicacion"),
        "start_date": ("start date", "fecha de inicio", "inicio"),
        "completion_date": (
            "completion date", "completed date", "fecha de terminacion", "fecha de finalizacion",
        ),
        "last_contact_date": ("last contact", "last contact date", "ultimo contacto"),
        "date_created": (
            "date created", "created", "createddatetime", "created date",
            "fecha de creacion", "creado", "date", "fecha",
        ),
    },
    EntityKind.TICKET: {
        "external_ref": (
            "po#", "po #", "po number", "purchase order", "ticket #", "ticket number",
            "ticket id", "co #", "change order #", "id", "orden de compra", "numero",
        ),
        "title": (
            "title", "subject", "description", "work",
            "titulo", "asunto", "descripcion", "trabajo",
        ),
        "type": ("type", "ticket type", "category", "tipo", "categoria"),
        "project_name": ("project", "project name", "job", "proyecto", "obra"),
        "client_name": ("client", "customer", "client name", "cliente"),
        "address": ("address", "location", "site", "direccion", "ubicacion"),
        "status": ("status", "stage", "estado", "etapa"),
        "technician": ("technician", "tech", "assigned to", "tecnico", "asignado"),
        "amount": ("amount", "total", "value", "price", "monto", "valor", "importe", "precio"),
        "labor_rate": ("labor rate", "hourly rate", "tarifa"),
        "notes": ("notes", "comments", "memo", "notas", "comentarios", "observaciones"),
        "date_created": ("date created", "created", "createddatetime", "date", "fecha"),
    },
    EntityKind.LEAD: {
        "external_ref": ("id", "lead id", "contact id"),
        "name": (
            "name", "full name", "contact name", "contact",
            "nombre", "nombre completo", "contacto",
        ),
        "company": ("company", "organization", "business", "empresa", "compania", "negocio"),
        "email": ("email", "e-mail", "mail", "correo", "correo electronico"),
        "phone": ("phone", "mobile", "cell", "telephone", "telefono", "celular", "movil"),
        "source": ("source", "lead source", "origin", "fuente", "origen"),
        "status": ("status", "stage", "estado", "etapa"),
        "notes": ("notes", "comments", "notas", "comentarios", "observaciones"),
        "date_added": ("date added", "created", "createddatetime", "date", "fecha"),
    },
    EntityKind.PURCHASE: {
        "external_ref": ("id", "invoice id", "bill id", "txn id", "line id"),
        "date": ("date", "txndate", "invoice date", "purchase date", "fecha"),
        "po_number": (
            "purchase order #", "po #", "po#", "po number", "purchase order",
            "docnumber", "invoice #", "invoice number", "orden de compra", "factura",
        ),
        "brand": ("brand", "manufacturer", "make", "marca", "fabricante"),
        "item_description": (
            "item", "item description", "description", "line.0.description", "product",
            "articulo", "descripcion", "producto",
        ),
        "quantity": ("quantity", "qty", "cantidad", "cant"),
        "unit_cost": (
            "unit cost", "unit price", "costo unitario", "precio unitario", "price", "precio",
        ),
        "total_cost": (
            "total", "total cost", "totalamt", "total amount", "amount", "extended",
            "importe", "monto", "cost", "costo",
        ),
        "supplier": ("supplier", "vendor", "vendorref.name", "proveedor", "distribuidor"),
        "project_name": ("project", "job", "proyecto", "obra"),
        "type": ("type", "category", "cost type", "tipo", "categoria"),
        "source": ("source", "origen"),
        "notes": ("notes", "memo", "notas"),
    },
}

# Project name used when a ticket/purchase row names no project
UNKNOWN_PROJECT = "Unknown"

# Defaults applied when a field resolves to nothing. Address, city and
# labor rate come from ImportConfig instead.
ENTITY_DEFAULTS: dict[EntityKind, dict[str, str]] = {
    EntityKind.PROJECT: {
        "name": "Untitled Project",
        "client": "Unknown Client",
        "estimator": "Unassigned",
    },
    EntityKind.TICKET: {
        "title": "Untitled Ticket",
        "client_name": "Unknown Client",
    },
    EntityKind.LEAD: {
        "name": "Unknown Contact",
    },
    EntityKind.PURCHASE: {
        "brand": "N/A",
        "source": "Import",
    },
}

IMAGE_URL_PREFIXES = ("http", "data:")
