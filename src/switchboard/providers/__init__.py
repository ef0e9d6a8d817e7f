"""Backend codecs: one module per wire dialect.

Codecs are imported from their modules (``switchboard.providers.openai``
and so on); ``switchboard.catalog`` wires them to backend profiles.
"""
