"""Translation engine — matcher, resolver, substitution, scoring, pipeline.

Per unit: the Structural Matcher annotates the IR with matches, the
Mapping Resolver attaches a resolution to each, the Template Substitution
Engine instantiates the chosen templates, the Synthesizer renders text, and
the Scorer turns per-node outcomes into a confidence value. The batch
pipeline runs units in parallel with one barrier before the cross-unit step.
"""
