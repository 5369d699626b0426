"""Enmascarado de direcciones IP para vistas no privilegiadas."""

MASK = '***'
FULL_MASK = '.'.join([MASK] * 4)


# mask_ip: Conserva los dos primeros octetos de una IPv4; para otros formatos
# (IPv6, nombres) conserva como mucho 8 caracteres y añade la máscara.
def mask_ip(ip: str) -> str:
    if not ip:
        return FULL_MASK
    parts = ip.split('.')
    if len(parts) == 4:
        return f"{parts[0]}.{parts[1]}.{MASK}.{MASK}"
    return ip[:8] + MASK
