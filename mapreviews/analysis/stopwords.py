"""Italian and English stopwords dropped from keyword extraction."""

STOPWORDS: frozenset[str] = frozenset({
    # Italian articles
    "il", "lo", "la", "i", "gli", "le", "un", "uno", "una", "l",
    # Italian prepositions
    "di", "da", "a", "in", "su", "per", "con", "tra", "fra",
    "al", "allo", "alla", "agli", "alle",
    "del", "dello", "della", "dei", "degli", "delle",
    "dal", "dallo", "dalla", "dai", "dagli", "dalle",
    "nel", "nello", "nella", "nei", "negli", "nelle",
    "sul", "sullo", "sulla", "sui", "sugli", "sulle",
    # Conjunctions and relative pronouns
    "e", "ed", "o", "od", "ma", "però", "anche", "se", "che", "chi", "cui",
    "quale", "quali", "quando", "dove", "come", "perché", "perchè",
    "questo", "questa", "questi", "queste", "quello", "quella", "quelli", "quelle",
    # Personal pronouns
    "io", "tu", "lui", "lei", "noi", "voi", "loro",
    "mi", "ti", "si", "ci", "vi", "ne", "me", "te", "ce", "ve",
    # Quantifiers and adverbs
    "molto", "poco", "più", "meno", "tanto", "troppo", "tutto", "tutti", "tutta", "tutte",
    "ogni", "ciascuno", "alcuni", "alcune", "non", "mai", "sempre", "già", "ancora",
    "solo", "proprio", "quasi", "circa", "davvero", "veramente",
    # Auxiliary and common verbs
    "essere", "avere", "fare", "stare", "andare", "venire", "dovere", "potere", "volere", "sapere",
    "sono", "è", "ho", "ha", "hanno", "era", "erano", "stato", "stati", "stata", "state", "fatto",
    "sia", "siamo", "siano", "abbia", "abbiano",
    # Filler nouns
    "cosa", "cose", "volta", "volte", "modo", "parte", "caso", "momento",
    "punto", "nome", "anno", "anni", "giorno", "giorni", "ora", "ore",
    "stesso", "stessa", "stessi", "stesse",
    # English (mixed-language reviews)
    "the", "and", "or", "but", "on", "at", "to", "for", "of", "with",
    "is", "was", "are", "were", "been", "be", "have", "has", "had",
    "do", "does", "did", "will", "would", "should", "could", "can",
    "this", "that", "these", "those", "it", "its", "my", "your", "his", "her", "their", "our",
    "you", "him", "she", "them", "us", "not", "very", "really", "just", "also",
})
