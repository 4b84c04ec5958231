'''
structlearn inference engines

Given a model and an example input, an inference engine finds the
best scoring structure (see `interface.Inference`):

* `viterbi.ViterbiInference`: label sequences
* `mst.MaximumBranchingInference`: dependency trees
* `coref.CoreferenceInference`: mention trees and their clusters
* `rank.RankInference`: item rankings

`mst.MaximumBranching` can also be used on its own to find maximum
branchings of dense weighted graphs.
'''
