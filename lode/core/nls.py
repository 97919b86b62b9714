"""Localized string lookup."""

from collections.abc import Mapping

DEFAULT_STRINGS: dict[str, dict[str, str]] = {
    "en": {
        "Map_Not_Available": "n/a",
        "Map_Unavailable": "The map could not be created. Check the viewer configuration.",
        "Search_Placeholder": "Search by census subdivision name or id",
        "Search_Title": "Search",
        "Table_Loading": "Loading table...",
        "Table_Failed": "The table data failed to load.",
        "Table_Empty": "No data to display.",
        "Toc_Opacity_Title": "Change the opacity of the map layers",
        "Toc_Opacity_Label": "Opacity",
        "Home_Title": "Zoom to the full extent",
        "Maps_Title": "Select a map",
        "Bookmarks_Title": "Go to a bookmark",
        "Help_Title": "How to use the map",
        "Help_Content": "Search a census subdivision, toggle legend entries to filter "
        "the map and click a feature to see its details.",
    },
    "fr": {
        "Map_Not_Available": "n.d.",
        "Map_Unavailable": "La carte n'a pas pu être créée. Vérifiez la configuration.",
        "Search_Placeholder": "Rechercher par nom ou code de subdivision de recensement",
        "Search_Title": "Recherche",
        "Table_Loading": "Chargement du tableau...",
        "Table_Failed": "Les données du tableau n'ont pas pu être chargées.",
        "Table_Empty": "Aucune donnée à afficher.",
        "Toc_Opacity_Title": "Modifier l'opacité des couches de la carte",
        "Toc_Opacity_Label": "Opacité",
        "Home_Title": "Zoom sur l'étendue complète",
        "Maps_Title": "Choisir une carte",
        "Bookmarks_Title": "Aller à un signet",
        "Help_Title": "Comment utiliser la carte",
        "Help_Content": "Recherchez une subdivision de recensement, activez ou désactivez "
        "les éléments de la légende et cliquez sur une entité pour voir ses détails.",
    },
}


class NlsCatalog:
    """Strings for one locale, falling back to the bundled defaults, then to the key."""

    def __init__(self, locale: str = "en", strings: Mapping[str, Mapping[str, str]] | None = None):
        self.locale = locale
        self._strings: dict[str, str] = dict(DEFAULT_STRINGS.get("en", {}))
        self._strings.update(DEFAULT_STRINGS.get(locale, {}))
        if strings:
            self._strings.update(strings.get(locale, {}))

    def get(self, key: str, *args: object) -> str:
        """Return the string for ``key`` with ``{0}``-style placeholders filled from ``args``."""
        text = self._strings.get(key, key)
        return text.format(*args) if args else text

    __call__ = get
