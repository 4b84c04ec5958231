'''
structlearn learners

Models
------
A model (see `interface.Model`) scores structures of one kind
(`interface.ModelKind`) with averaged perceptron weights:

* `hmm.Hmm` and `hmm.DualHmm`: label sequences
* `graph.DependencyModel`: dependency trees
* `graph.CoreferenceModel`: mention trees / clusterings
* `rank.RankModel`: item rankings

Learners
--------
The perceptron variants in `perceptron` train a model in place, using
an inference engine from `structlearn.decoding` to decode examples.
'''
